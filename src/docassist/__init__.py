"""docassist: document chat and comment triage backed by an AI model."""

__version__ = "0.1.0"
