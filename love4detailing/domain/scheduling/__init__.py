"""Scheduling domain - slots, working days and the admin week overview"""
