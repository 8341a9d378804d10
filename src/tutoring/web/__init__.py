"""Web API for the tutoring platform."""
