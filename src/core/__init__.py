"""Core domain package for obsbridge.

Core contains keys, the subscription registry, command parsing, event
classification, formatting and dispatch without any Telegram or RabbitMQ
specific code, keeping the business logic portable.
"""
