"""A small application used as code under test."""
