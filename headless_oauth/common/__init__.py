"""Common building blocks - exceptions, responses, logging."""
