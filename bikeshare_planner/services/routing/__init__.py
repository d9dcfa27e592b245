"""Routing pipeline: engine client, metrics, category selection and itinerary assembly."""
