"""bundleforge build report — Rich rendering of stage states and artifacts."""
