"""agentforge - turn a free-text agent description into a runnable agent configuration."""

__version__ = "0.1.0"
