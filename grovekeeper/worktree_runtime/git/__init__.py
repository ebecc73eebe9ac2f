"""git plumbing: command runner, branch naming, identity, base refs, hygiene."""
