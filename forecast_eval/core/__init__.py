"""Pairwise forecast evaluation pipeline"""
