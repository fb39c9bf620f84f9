"""Risk Sentinel services: scoring, scanning and read-side queries"""
