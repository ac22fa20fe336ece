"""
Tests for the Health Check Evaluation Module.

This package contains tests for:
- Indicator evaluation and confidence
- Composite state voting
- Hysteresis debouncing
- Trend regression and prediction
- Evaluation orchestration
- Configuration loading
- Hysteresis store and manager
- Wire schemas
"""
