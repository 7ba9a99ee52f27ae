"""SmartDesk: team projects, tasks, FAQs and an AI assistant over FastAPI."""

__version__ = "0.1.0"
