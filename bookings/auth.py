from functools import wraps

from django.http import JsonResponse


def admin_required(view):
    """Reject callers that are not signed-in staff users."""

    @wraps(view)
    def wrapper(request, *args, **kwargs):
        user = request.user
        if not user.is_authenticated:
            return JsonResponse({'error': 'Authentication required'}, status=401)
        if not user.is_staff:
            return JsonResponse({'error': 'Admin access required'}, status=403)
        return view(request, *args, **kwargs)

    return wrapper
