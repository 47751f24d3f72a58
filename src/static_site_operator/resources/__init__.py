"""Resource nodes of the static site stack."""
