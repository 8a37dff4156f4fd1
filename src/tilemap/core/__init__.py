"""Core subsystems: configuration, logging, events, stores and graph."""
