from rest_framework import serializers


class BedCreateSerializer(serializers.Serializer):
    bedNumber = serializers.CharField(max_length=20)
    roomCategory = serializers.CharField(max_length=16)
    dailyRate = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)


class BedListQuerySerializer(serializers.Serializer):
    status = serializers.CharField(required=False, allow_blank=True)
    roomCategory = serializers.CharField(required=False, allow_blank=True)
