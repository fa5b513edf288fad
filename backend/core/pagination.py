from rest_framework.pagination import PageNumberPagination


class StandardPagination(PageNumberPagination):
    """Page-number pagination returning {count, next, previous, results}."""

    page_size = 25
    page_size_query_param = "page_size"
    max_page_size = 200


def paginate(request, queryset, serializer_class, view=None, context=None):
    """Paginate a queryset inside an APIView and return the envelope Response."""
    paginator = StandardPagination()
    page = paginator.paginate_queryset(queryset, request, view=view)
    serializer = serializer_class(page, many=True, context=context or {"request": request})
    return paginator.get_paginated_response(serializer.data)
