"""Small helpers shared across releasewire packages."""
