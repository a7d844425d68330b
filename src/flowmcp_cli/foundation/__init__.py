"""Foundation: settings, configuration store and error types."""
