"""Adapters binding the core to Telegram (telethon) and RabbitMQ (pika)."""
