"""
Facebook Marketing API source.

Key Components:
- http_client: FacebookGraphClient, paginated Graph API queries
- adapter: InsightsFetcher, multi-account parallel fetch
- metrics: metric key to Graph field resolution and value extraction
- processor: InsightsProcessor, rows projected onto sheet columns
- ads_info: AdsInfoExporter, ad metadata export
"""
