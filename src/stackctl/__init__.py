"""stackctl - deploy sequencer for the containerized web application stack."""

__version__ = "0.1.0"
