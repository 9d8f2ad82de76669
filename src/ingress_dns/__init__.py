"""DNS responder that answers for Kubernetes ingress hosts and forwards the rest."""

__version__ = "0.1.0"
