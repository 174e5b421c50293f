"""Accounts domain - customer account provisioning for guest bookings"""
