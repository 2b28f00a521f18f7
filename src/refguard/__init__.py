"""refguard - dependency rule enforcement for project and package references."""

__version__ = "0.1.0"
