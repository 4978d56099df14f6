from collections import OrderedDict

from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class DefaultPageNumberPagination(PageNumberPagination):
    """
    Page size comes from REST_FRAMEWORK["PAGE_SIZE"]; callers may ask for up
    to 100 rows with ?page_size=. Ledgers and ticket histories are listed
    newest first, so the page number is also reported back.

      { "count", "page", "total_pages", "next", "previous", "results" }
    """
    page_size_query_param = "page_size"
    max_page_size = 100

    def get_paginated_response(self, data):
        return Response(OrderedDict([
            ("count", self.page.paginator.count),
            ("page", self.page.number),
            ("total_pages", self.page.paginator.num_pages),
            ("next", self.get_next_link()),
            ("previous", self.get_previous_link()),
            ("results", data),
        ]))
