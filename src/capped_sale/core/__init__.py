"""Core types shared by every sale component."""
