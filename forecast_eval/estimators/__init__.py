"""Long-run variance, block size selection and block bootstrap"""
