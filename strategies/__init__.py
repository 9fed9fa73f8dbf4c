"""Strategy definitions, factory and preset rule sets."""
