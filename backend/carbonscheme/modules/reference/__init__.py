"""Read access to reference data (plants, mixes, products, installation setups)."""
