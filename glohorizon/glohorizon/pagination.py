from rest_framework.pagination import PageNumberPagination


class RequestListPagination(PageNumberPagination):
    """Back-office and "my bookings" lists. Agents can ask for up to 100 rows."""
    page_size = 25
    page_size_query_param = 'page_size'
    max_page_size = 100
