"""Static metadata describing GreenMind Quiz."""

APP_NAME = "GreenMind Quiz"
APP_VERSION = "1.0.0"
APP_DESCRIPTION = "Environmental awareness quiz with server-side score validation."
