"""Release tooling for the K3s and RKE2 Kubernetes distributions.

Generates release notes by combining a changelog with component versions
scraped from the upstream repositories, and manages GitHub release assets.
"""

__version__ = "0.1.0"
