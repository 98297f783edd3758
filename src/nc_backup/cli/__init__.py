"""Command line interface for nc-backup."""
