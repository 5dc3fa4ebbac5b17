"""busflow: process-local event bus with a workflow orchestration protocol."""

__version__ = "1.0.0"
