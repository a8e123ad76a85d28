"""Scoring, normalization, message locators and the reward guard."""
