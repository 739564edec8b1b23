"""In-patient department application.

This package tracks in-ward stays from bed assignment to discharge: bed
occupancy, the patient ledger, settlement computation and the multi-step
discharge that leaves the admission, the bed and the ledger consistent.
"""
