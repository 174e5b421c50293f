"""Bookings domain - booking transaction, pricing and lifecycle"""
