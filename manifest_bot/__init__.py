"""Manifest Bot: shipment manifests over Telegram and WhatsApp."""

__version__ = "1.0.0"
