# -*- coding: utf-8 -*-
"""DriftWatch monitor edit API (FastAPI)."""
