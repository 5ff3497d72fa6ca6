"""AttenDO: class attendance tracking and skip budgeting."""

__version__ = "0.1.0"
