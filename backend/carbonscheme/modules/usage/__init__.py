"""A5 installation usage: plant fuel litres and transport distances."""
