"""Layering and convention checks over src/beadrelay."""
