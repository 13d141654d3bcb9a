"""HTTP-layer plumbing shared by the routers."""
