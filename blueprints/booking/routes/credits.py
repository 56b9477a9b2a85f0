"""
Credit API routes.
Cancellation credits of the current customer.
"""

from flask_login import login_required, current_user

from models.cancellation_credit import get_available_credits, get_credit_history
from utils.api_response import api_success


def register_routes(bp):
    """Register credit routes on the blueprint."""

    @bp.route('/credits')
    @login_required
    def my_credits():
        """Available credits, their total, and the full credit history."""
        available = get_available_credits(current_user.id)
        return api_success(data={
            'available': available,
            'available_total': sum(c['credit_amount'] for c in available),
            'history': get_credit_history(current_user.id),
        })
