"""NexusHR: offline-first employee, leave and payroll management."""

__version__ = "2.0.0"
