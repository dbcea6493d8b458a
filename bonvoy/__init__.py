"""bonvoy: release pipeline for Python monorepos."""
