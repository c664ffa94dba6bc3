"""Image storage: layout planning, codecs and the build pipeline.

Main Functions:
    - builder.build_image(): Build an image from a Configuration
    - layout.plan_layout(): Compute sector-aligned partition ranges
    - gpt.write_partition_table(): Encode primary and backup GPT
    - fat.create_filesystem(): Format and populate a FAT partition
    - content.write_content(): Write one partition's content
"""
