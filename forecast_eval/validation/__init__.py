"""Diebold-Mariano comparison and VaR backtests"""
