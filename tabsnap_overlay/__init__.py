"""Overlay host for the TabSnap tab switcher."""
