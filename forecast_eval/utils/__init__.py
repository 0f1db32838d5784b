"""Scoring functions, risk metrics and array helpers"""
