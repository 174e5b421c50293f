"""Rewards domain - points ledger and tiers"""
